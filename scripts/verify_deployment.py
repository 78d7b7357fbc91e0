#!/usr/bin/env python3
"""Deployment smoke test for the transcript sync webhook server.

Usage:
    python scripts/verify_deployment.py --url https://transcripts.example.com

Checks liveness (/health), readiness (/health/ready: Fireflies and the
delivery target both answer) and the Prometheus endpoint (/metrics).

Exit code 0 if all checks pass, 1 if any fail.
"""

import argparse
import sys
from typing import Tuple

import httpx

TIMEOUT = 15.0


def _get(url: str) -> httpx.Response:
    return httpx.get(url, timeout=TIMEOUT, follow_redirects=True)


def check_liveness(base_url: str) -> Tuple[bool, str]:
    """Verify /health answers with status "healthy"."""
    try:
        response = _get(base_url.rstrip("/") + "/health")
        if response.status_code != 200:
            return False, f"HTTP {response.status_code}"
        data = response.json()
        if data.get("status") != "healthy":
            return False, f"Status: {data.get('status', 'unknown')}"
        busy = " (scan in progress)" if data.get("scheduler_busy") else ""
        return True, f"{data.get('service', 'service')} healthy{busy}"
    except ValueError:
        return False, "Response is not valid JSON"
    except httpx.TimeoutException:
        return False, "Request timed out"
    except httpx.ConnectError as exc:
        return False, f"Connection failed: {exc}"
    except httpx.HTTPError as exc:
        return False, f"HTTP error: {exc}"


def check_readiness(base_url: str) -> Tuple[bool, str]:
    """Verify /health/ready reports both the source and the target as ok."""
    try:
        response = _get(base_url.rstrip("/") + "/health/ready")
        try:
            data = response.json()
        except ValueError:
            return False, f"HTTP {response.status_code}, response is not valid JSON"

        if response.status_code == 200 and data.get("status") == "ready":
            return True, "Source and target reachable"

        checks = data.get("checks", {})
        failed = [name for name in ("source", "target") if checks.get(name) != "ok"]
        if failed:
            return False, f"Degraded: {', '.join(failed)}"
        return False, f"HTTP {response.status_code}"
    except httpx.TimeoutException:
        return False, "Request timed out"
    except httpx.ConnectError as exc:
        return False, f"Connection failed: {exc}"
    except httpx.HTTPError as exc:
        return False, f"HTTP error: {exc}"


def check_metrics(base_url: str) -> Tuple[bool, str]:
    """Verify /metrics exposes the pipeline counters."""
    try:
        response = _get(base_url.rstrip("/") + "/metrics")
        if response.status_code != 200:
            return False, f"HTTP {response.status_code}"
        if "transcripts_processed_total" not in response.text:
            return False, "Pipeline metrics missing"
        return True, f"{len(response.content)} bytes"
    except httpx.TimeoutException:
        return False, "Request timed out"
    except httpx.ConnectError as exc:
        return False, f"Connection failed: {exc}"
    except httpx.HTTPError as exc:
        return False, f"HTTP error: {exc}"


def print_results(results: list) -> None:
    """Print a formatted table of check results."""
    header = f"{'CHECK':<25} {'STATUS':<10} {'DETAIL'}"
    separator = "-" * 70
    print()
    print(separator)
    print(header)
    print(separator)
    for name, passed, detail in results:
        status = "PASS" if passed else "FAIL"
        print(f"{name:<25} {status:<10} {detail}")
    print(separator)
    print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Verify a transcript sync server deployment")
    parser.add_argument("--url", required=True, help="Base URL of the webhook server")
    args = parser.parse_args()

    results = [
        ("Liveness", *check_liveness(args.url)),
        ("Readiness", *check_readiness(args.url)),
        ("Metrics", *check_metrics(args.url)),
    ]

    print_results(results)

    all_passed = all(passed for _, passed, _ in results)
    print("All checks passed." if all_passed else "Some checks FAILED.")
    sys.exit(0 if all_passed else 1)


if __name__ == "__main__":
    main()
