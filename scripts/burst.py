"""
Concurrent scan script against a running stock scanner.

Fires a burst of simultaneous scans of one product and reports how many
were applied and how far the quantity actually dropped. With the product
lock in place every applied scan lowers the quantity by exactly one
(until it reaches zero).

Every scan here is real: it decrements the Notion record.
"""

import argparse
import asyncio
import time

import aiohttp


BASE_URL = "http://localhost:8000"
CONCURRENT_SCANS = 5


async def scan(session: aiohttp.ClientSession, product: str) -> tuple[int, dict]:
    """Performs one scan and returns the HTTP status code and JSON body."""
    try:
        async with session.get(f"{BASE_URL}/api/updateStock", params={"product": product}) as response:
            return response.status, await response.json(content_type=None)
    except aiohttp.ClientError as exc:
        return 599, {"error": str(exc)}


async def run_burst(product: str, count: int) -> tuple[list[tuple[int, dict]], float]:
    """
    Launches ``count`` concurrent scans of ``product``.

    Returns:
        tuple: (responses, duration_seconds)
    """
    async with aiohttp.ClientSession() as session:
        start_time = time.perf_counter()
        responses = await asyncio.gather(*(scan(session, product) for _ in range(count)))
        duration = time.perf_counter() - start_time
    return responses, duration


def print_report(product: str, responses: list[tuple[int, dict]], duration: float) -> None:
    applied = [body for status, body in responses if status == 200]
    failed = [(status, body.get("error")) for status, body in responses if status != 200]

    print(f"\nBurst of {len(responses)} scans of '{product}' in {duration:.3f}s")
    print(f"  Applied....: {len(applied)}")
    print(f"  Failed.....: {len(failed)}")

    if applied:
        before = max(body["previousQuantity"] for body in applied)
        after = min(body["newQuantity"] for body in applied)
        print(f"  Quantity...: {before} -> {after}")
        expected = max(0, before - len(applied))
        if after != expected:
            print(f"  LOST UPDATES: expected {expected} after {len(applied)} scans")

    for status, error in failed:
        print(f"  [{status}] {error}")


async def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("product", help="Exact product name in the Notion database")
    parser.add_argument("-n", "--count", type=int, default=CONCURRENT_SCANS)
    args = parser.parse_args()

    responses, duration = await run_burst(args.product, args.count)
    print_report(args.product, responses, duration)


if __name__ == "__main__":
    asyncio.run(main())
