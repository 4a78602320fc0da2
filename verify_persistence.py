import time
import subprocess
import httpx
import sys
import os
import signal

from backend.app.core.jwt import create_access_token

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"
ENROLLMENT = "ENR-PERSIST"

ADMIN_HEADERS = {"Authorization": f"Bearer {create_access_token({'sub': 'persist@example.com', 'role': 'ADMIN'})}"}


def start_server(echo=False):
    env = {**os.environ, "DB_ECHO": "True"} if echo else None
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
    )


def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for _ in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("Server is up")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("Server failed to start")
    return False


def run_verification():
    # 1. Start server and write an account plus a ledger entry
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server(echo=True)

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stderr:", server_logs[1].decode())
            raise RuntimeError("Server start failed")

        print("\n--- [Step 2] Creating Account ---")
        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/admin/accounts",
            json={"enrollment": ENROLLMENT, "brandName": "Persistence Check"},
            headers=ADMIN_HEADERS,
        )
        if resp.status_code == 409:
            print("Account already exists (persisted from a previous run)")
        elif resp.status_code == 201:
            print("Account created")
            resp = httpx.post(
                f"{BASE_URL}{API_PREFIX}/admin/add-money",
                json={"enrollment": ENROLLMENT, "amount": 10},
                headers=ADMIN_HEADERS,
            )
            resp.raise_for_status()
            print(f"Credited, balance {resp.json()['balance']}")
        else:
            raise RuntimeError(f"Account creation failed: {resp.status_code} {resp.text}")
    finally:
        print("\n--- [Step 3] Stopping Server ---")
        stop_server(proc)

    time.sleep(2)  # port release

    # 2. Restart and check the ledger still reconciles
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise RuntimeError("Server restart failed")

        print("\n--- [Step 5] Reconciling Account (Post-Restart) ---")
        resp = httpx.get(
            f"{BASE_URL}{API_PREFIX}/admin/accounts/{ENROLLMENT}/reconcile",
            headers=ADMIN_HEADERS,
        )
        if resp.status_code != 200:
            raise RuntimeError(f"Account missing after restart: {resp.status_code} {resp.text}")
        report = resp.json()
        print(f"Balance {report['balance']}, ledger total {report['ledger_total']}, consistent={report['consistent']}")
        if not report["consistent"]:
            raise RuntimeError("Balance drifted from the ledger")
    finally:
        print("\n--- [Step 6] Stopping Server ---")
        stop_server(proc2)


if __name__ == "__main__":
    run_verification()
