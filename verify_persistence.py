import time
import subprocess
import httpx
import sys
import os
import signal
from decimal import Decimal

from modmarket.app.core.jwt import issue_access_token

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"

# Accounts created by modmarket/seed_marketplace.py
ADMIN = {"sub": "admin", "user_id": 1, "role": "ADMIN"}
BUYER = {"sub": "player1", "user_id": 3, "role": "BUYER"}

def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        except Exception as e:
            print(f"Connect error: {e}")
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False

def start_server(extra_env=None):
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "modmarket.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env={**os.environ, "RECONCILIATION_ENABLED": "false", **(extra_env or {})}
    )

def get_balance(headers):
    resp = httpx.get(f"{BASE_URL}{API_PREFIX}/wallet", headers=headers)
    if resp.status_code != 200:
        raise Exception(f"Wallet check failed: {resp.status_code} {resp.text}")
    return Decimal(resp.json()["balance"])

def run_verification():
    admin_headers = {"Authorization": f"Bearer {issue_access_token(ADMIN)}"}
    buyer_headers = {"Authorization": f"Bearer {issue_access_token(BUYER)}"}

    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server({"DB_ECHO": "True"})
    
    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Record a deposit
        print("\n--- [Step 2] Recording Deposit (Persistence Test) ---")
        before = get_balance(buyer_headers)
        deposit_url = f"{BASE_URL}{API_PREFIX}/admin/users/{BUYER['user_id']}/deposit"
        resp = httpx.post(deposit_url, json={"amount": "20.00", "mode": "ADD"}, headers=admin_headers)
        
        if resp.status_code == 200:
            print("✅ Deposit Recorded")
            print(resp.json())
        else:
            print(f"❌ Deposit Failed: {resp.status_code} {resp.text}")
            raise Exception("Deposit failed")
        expected = Decimal(resp.json()["balance"])
        print(f"Balance: {before} -> {expected}")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        proc.send_signal(signal.SIGTERM)
        proc.wait()
    
    time.sleep(2) # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        # 4. Balance survived restart
        print("\n--- [Step 5] Checking Wallet (Post-Restart) ---")
        after = get_balance(buyer_headers)
        if after == expected:
            print(f"✅ Balance Persisted: {after}")
        else:
            print(f"❌ Balance Mismatch (Persistence Issue?): expected {expected}, got {after}")
            raise Exception("Balance lost after restart")

        # 5. Audit trail survived restart
        print("\n--- [Step 6] Checking Audit Trail ---")
        resp = httpx.get(
            f"{BASE_URL}{API_PREFIX}/admin/audit-logs",
            params={"action": "DEPOSIT_RECORDED", "user_id": BUYER["user_id"]},
            headers=admin_headers,
        )
        if resp.status_code == 200 and resp.json()["total"] >= 1:
            print("✅ Audit Trail Verified")
        else:
            print(f"❌ Audit Trail Check Failed: {resp.status_code}")

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        proc2.send_signal(signal.SIGTERM)
        proc2.wait()

if __name__ == "__main__":
    run_verification()
