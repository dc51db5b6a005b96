#!/usr/bin/env python3
"""
End-to-end demo against a running Helios API.

Prerequisites:
    1. API (uvicorn app.main:app), database and MinIO running
    2. OPENAI_API_KEY set in .env
    3. For --batch: Temporal and the worker (python -m worker.run)

Usage:
    python scripts/e2e_demo.py path/to/contract.pdf

    # Several files analysed as one contract, with data points:
    python scripts/e2e_demo.py page1.jpg page2.jpg --data-points "Governing Law" "Payment Terms"

    # Queue the files as a batch and wait for the worker:
    python scripts/e2e_demo.py a.pdf b.docx --batch

    # Output raw JSON:
    python scripts/e2e_demo.py contract.pdf --json
"""

import argparse
import json
import mimetypes
import sys
import time
from pathlib import Path

import httpx

API_BASE = "http://localhost:8000"
POLL_INTERVAL = 5  # seconds
MAX_WAIT = 600  # seconds; batch items are spaced out by the worker


def check_ready(client: httpx.Client) -> dict:
    try:
        return client.get(f"{API_BASE}/health/ready").json()
    except httpx.RequestError as e:
        return {"status": "unreachable", "checks": {"api": str(e)}}


def as_upload(path: Path) -> tuple:
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return ("files", (path.name, path.read_bytes(), content_type))


def form_fields(args) -> dict:
    fields = {"locale": args.locale}
    if args.data_points:
        fields["dataPoints"] = json.dumps(args.data_points)
    if args.question:
        fields["customQuery"] = args.question
    return fields


def unwrap(resp: httpx.Response) -> dict:
    """Return ``data`` of the response envelope or exit with its error."""
    body = resp.json()
    if not body.get("success"):
        print(f"  Error {resp.status_code}: {body.get('error') or body.get('detail')}")
        sys.exit(1)
    return body["data"]


def print_analysis(data: dict) -> None:
    print("\n" + "=" * 60)
    print(f"{data.get('contractType', 'Contract')} - risk {data.get('riskScore')}/10")
    print("=" * 60)
    if data.get("summary"):
        print(f"\n{data['summary']}")
    print(f"\nParties: {', '.join(data.get('parties', [])) or 'N/A'}")
    print(f"Effective: {data.get('effectiveDate')}  Renewal: {data.get('renewalDate')}")
    print(f"Notice period: {data.get('noticePeriodDays')} days")
    print(f"Termination clause: {data.get('terminationClauseReference')}")

    for alert in data.get("alerts", []):
        print(f"  ! {alert}")
    for clause in data.get("abusiveClauses", []):
        print(f"  x {clause}")

    for point, value in (data.get("extractedData") or {}).items():
        source = (data.get("dataSources") or {}).get(point)
        print(f"  {point}: {value}" + (f'  ("{source}")' if source else ""))
    if data.get("customAnswer"):
        print(f"\nQ: {data.get('customQuery')}\nA: {data['customAnswer']}")

    tasks = data.get("suggestedTasks", [])
    if tasks:
        print("\n--- Suggested tasks ---")
        for task in tasks:
            print(f"  [{task['priority']:<6}] {task['suggestedDueDate']}  {task['title']}")
    print(f"\nModel: {data.get('model')} ({data.get('provider')})  persisted={data.get('persisted')}")


def run_single(client: httpx.Client, args) -> dict:
    print(f"\nAnalysing {len(args.files)} file(s) as one contract...")
    resp = client.post(
        f"{API_BASE}/api/process-contract",
        files=[as_upload(p) for p in args.files],
        data=form_fields(args),
    )
    result = unwrap(resp)
    print(f"  Contract ID: {result['id']}")

    tasks = unwrap(client.get(f"{API_BASE}/api/contracts/{result['id']}/tasks", params={"locale": args.locale}))
    print(f"  Stored tasks endpoint returned {len(tasks['tasks'])} task(s)")
    return result


def run_batch(client: httpx.Client, args) -> dict:
    print(f"\nQueueing {len(args.files)} contract(s) for batch analysis...")
    resp = client.post(f"{API_BASE}/api/batch", files=[as_upload(p) for p in args.files], data=form_fields(args))
    accepted = unwrap(resp)
    print(f"  Workflow: {accepted['workflowId']}")

    pending = set(accepted["contractIds"])
    details = {}
    start = time.time()
    while pending and time.time() - start < MAX_WAIT:
        for contract_id in sorted(pending):
            detail = unwrap(client.get(f"{API_BASE}/api/contracts/{contract_id}"))
            if detail["status"] in ("completed", "failed"):
                pending.discard(contract_id)
                details[contract_id] = detail
                print(f"  {detail['fileName']}: {detail['status']}")
        if pending:
            time.sleep(POLL_INTERVAL)

    if pending:
        print(f"  Timed out after {MAX_WAIT}s with {len(pending)} contract(s) pending")
        sys.exit(1)
    return details


def main():
    parser = argparse.ArgumentParser(description="E2E demo for the Helios contract analysis API")
    parser.add_argument("files", nargs="+", type=Path, help="Contract files (pdf, docx, jpg, png, webp)")
    parser.add_argument("--data-points", nargs="*", default=[], help="Data points to extract")
    parser.add_argument("--question", "-q", help="Custom question about the contract")
    parser.add_argument("--locale", default="en", help="Task text locale (en, es, ...)")
    parser.add_argument("--batch", action="store_true", help="Queue as a Temporal batch")
    parser.add_argument("--json", action="store_true", help="Output raw JSON")
    args = parser.parse_args()

    missing = [str(p) for p in args.files if not p.exists()]
    if missing:
        print(f"Error: file(s) not found: {', '.join(missing)}")
        sys.exit(1)

    with httpx.Client(timeout=180.0) as client:
        print("Checking readiness...")
        ready = check_ready(client)
        for service, status in ready.get("checks", {}).items():
            print(f"  {service}: {status}")
        if ready.get("status") not in ("ok", "degraded"):
            print("  Error: API is not ready")
            sys.exit(1)

        result = run_batch(client, args) if args.batch else run_single(client, args)

    if args.json:
        print(json.dumps(result, indent=2, default=str))
    elif not args.batch:
        print_analysis(result)


if __name__ == "__main__":
    main()
