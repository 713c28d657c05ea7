#!/usr/bin/env python3
"""Health check script for the arbitrage relay"""

import sys
from datetime import datetime

import requests

RELAY_URL = "http://localhost:5000"
METRICS_URL = "http://localhost:8000/metrics"


def check_relay(base_url: str = RELAY_URL) -> bool:
    """Check /health and /arb on the relay"""
    try:
        response = requests.get(f"{base_url}/health", timeout=5)
        health = response.json()
        healthy = response.status_code == 200 and health.get('status') == 'healthy'
        print(f"{'✅' if healthy else '❌'} Relay {health.get('status', response.status_code)} (RPC {health.get('rpc')})")
        if not healthy:
            return False

        response = requests.get(f"{base_url}/arb", timeout=30)
        arb = response.json()
        if arb.get('profitable'):
            print(f"✅ Route profitable: {int(arb['profit']) / 1e9:.6f} SOL")
        else:
            print(f"✅ Route evaluated: {arb.get('reason') or arb.get('error')}")
        return True

    except requests.exceptions.ConnectionError:
        print("❌ Cannot connect to relay")
        return False
    except (requests.exceptions.RequestException, ValueError) as e:
        print(f"❌ Error checking relay: {e}")
        return False


def check_metrics(metrics_url: str = METRICS_URL) -> bool:
    """Check relay metrics are exported"""
    try:
        response = requests.get(metrics_url, timeout=5)
    except requests.exceptions.RequestException:
        print("❌ Cannot connect to relay metrics endpoint")
        return False

    if response.status_code != 200:
        print(f"❌ Metrics endpoint returned {response.status_code}")
        return False

    metrics = response.text
    checks = {
        'Checks Metric': 'relay_arbitrage_checks_total' in metrics,
        'Opportunities Metric': 'relay_profitable_opportunities_total' in metrics,
        'Submissions Metric': 'relay_transactions_submitted_total' in metrics
    }

    all_good = True
    for check, result in checks.items():
        print(f"{'✅' if result else '❌'} {check}")
        all_good = all_good and result
    return all_good


if __name__ == "__main__":
    print(f"🏥 Health Check - {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("-" * 50)

    base_url = sys.argv[1] if len(sys.argv) > 1 else RELAY_URL
    if check_relay(base_url) and check_metrics():
        print("\n✅ Relay is healthy!")
        sys.exit(0)
    else:
        print("\n❌ Relay health check failed!")
        sys.exit(1)
