#!/usr/bin/env python3
"""
Smoke test for captcha provider deployments.

Flow (default):
1. Health check
2. Provider details (address, registered datasets)
3. PoW challenge (POST /captcha/pow)
4. PoW solution (solve locally, POST /pow/solution)
5. Dapp verification (POST /pow/verify), then a replay that must fail

Keys for the fake user and dapp are generated per run. Requires the
captcha_provider package to be installed (pip install -e .).

Usage:
    ./scripts/smoke-test.py https://provider.example.com
    ./scripts/smoke-test.py https://provider.example.com --health-only
"""

import argparse
import json
import random
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from solders.keypair import Keypair

from captcha_provider.core.pow import sign_timestamp, solve_challenge
from captcha_provider.core.signing import address_of, sign_message
from captcha_provider.core.token import ProcaptchaOutput, encode_token
from captcha_provider.paths import ApiPaths

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
MAX_BACKOFF_SECONDS = 4.0
MAX_ERROR_BODY_CHARS = 2_000


class ApiError(RuntimeError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


def _is_retryable_status(status_code: int) -> bool:
    return status_code in {408, 425, 429, 502, 503, 504}


@dataclass
class HttpClient:
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES

    def request(self, method: str, path: str, data: dict[str, Any] | None = None) -> tuple[int, bytes]:
        body = json.dumps(data).encode() if data is not None else None
        headers = {"Content-Type": "application/json"} if body is not None else {}
        max_attempts = max(1, self.retries + 1)

        for attempt in range(1, max_attempts + 1):
            request = Request(f"{self.base_url}{path}", data=body, headers=headers, method=method)
            try:
                with urlopen(request, timeout=self.timeout_seconds) as response:
                    return response.getcode(), response.read()
            except HTTPError as e:
                if attempt < max_attempts and _is_retryable_status(e.code):
                    self._sleep_backoff(attempt)
                    continue
                return e.code, e.read() if e.fp else b""
            except (URLError, TimeoutError) as e:
                if attempt < max_attempts:
                    self._sleep_backoff(attempt)
                    continue
                raise RuntimeError(f"Network error after {attempt} attempts: {e}") from e
        raise RuntimeError(f"{method} {path} failed after {max_attempts} attempts")

    def api_json(self, method: str, path: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        status, body = self.request(method, path, data)
        if status < 200 or status >= 300:
            raise ApiError(status, body.decode("utf-8", errors="replace")[:MAX_ERROR_BODY_CHARS])
        return json.loads(body.decode())

    def _sleep_backoff(self, attempt: int) -> None:
        base = DEFAULT_RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1))
        time.sleep(min(MAX_BACKOFF_SECONDS, base + random.random() * DEFAULT_RETRY_BACKOFF_SECONDS))


@dataclass
class SmokeContext:
    client: HttpClient
    max_health_attempts: int
    user: Keypair = field(default_factory=Keypair)
    dapp: Keypair = field(default_factory=Keypair)

    provider_url: str | None = None
    challenge: dict[str, Any] | None = None
    nonce: int | None = None

    def require_challenge(self) -> dict[str, Any]:
        if self.challenge is None:
            raise RuntimeError("Missing challenge (step ordering bug)")
        return self.challenge


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[SmokeContext], None]


def run_steps(ctx: SmokeContext, steps: list[Step]) -> bool:
    overall_start = time.time()
    for step in steps:
        log(f"STEP: {step.name}")
        start = time.time()
        try:
            step.run(ctx)
        except Exception as e:
            log(f"FAILED: {step.name} ({time.time() - start:.2f}s) - {e}")
            return False
        log(f"OK: {step.name} ({time.time() - start:.2f}s)")
    log(f"Total: {time.time() - overall_start:.2f}s")
    return True


def step_health(ctx: SmokeContext) -> None:
    for attempt in range(1, ctx.max_health_attempts + 1):
        try:
            status, body = ctx.client.request("GET", "/health")
            if status == 200 and json.loads(body.decode()).get("status") == "healthy":
                log(f"Health check passed (attempt {attempt})")
                return
        except (json.JSONDecodeError, RuntimeError):
            pass
        time.sleep(2.0)
    raise RuntimeError("Health check failed")


def step_details(ctx: SmokeContext) -> None:
    details = ctx.client.api_json("GET", ApiPaths.GET_PROVIDER_DETAILS.value)
    ctx.provider_url = details["url"]
    log(f"Provider {details['address']} at {details['url']} with {len(details['datasets'])} dataset(s)")


def step_pow_challenge(ctx: SmokeContext) -> None:
    ctx.challenge = ctx.client.api_json(
        "POST",
        ApiPaths.GET_POW_CAPTCHA_CHALLENGE.value,
        {"user": address_of(ctx.user), "dapp": address_of(ctx.dapp)},
    )
    log(f"Challenge difficulty={ctx.challenge['difficulty']}")


def step_pow_solution(ctx: SmokeContext) -> None:
    challenge = ctx.require_challenge()
    start = time.time()
    ctx.nonce = solve_challenge(challenge["challenge"], challenge["difficulty"])
    log(f"PoW solved: nonce={ctx.nonce} ({time.time() - start:.2f}s)")

    result = ctx.client.api_json(
        "POST",
        ApiPaths.SUBMIT_POW_CAPTCHA_SOLUTION.value,
        {
            "challenge": challenge["challenge"],
            "difficulty": challenge["difficulty"],
            "timestamp": challenge["timestamp"],
            "signature": {
                "provider": challenge["signature"]["provider"],
                "user": {"timestamp": sign_timestamp(ctx.user, challenge["timestamp"])},
            },
            "nonce": ctx.nonce,
            "user": address_of(ctx.user),
            "dapp": address_of(ctx.dapp),
        },
    )
    if not result.get("verified"):
        raise RuntimeError(f"Solution rejected: {result}")


def step_dapp_verify(ctx: SmokeContext) -> None:
    challenge = ctx.require_challenge()
    token = encode_token(
        ProcaptchaOutput(
            user=address_of(ctx.user),
            dapp=address_of(ctx.dapp),
            provider_url=ctx.provider_url or ctx.client.base_url,
            block_number=0,
            challenge=challenge["challenge"],
            nonce=ctx.nonce,
            timestamp=challenge["timestamp"],
        )
    )
    body = {"token": token, "dappSignature": sign_message(ctx.dapp, token)}

    first = ctx.client.api_json("POST", ApiPaths.VERIFY_POW_CAPTCHA_SOLUTION.value, body)
    if not first.get("verified"):
        raise RuntimeError(f"Dapp verification failed: {first}")

    replay = ctx.client.api_json("POST", ApiPaths.VERIFY_POW_CAPTCHA_SOLUTION.value, body)
    if replay.get("verified"):
        raise RuntimeError("Replayed verification was accepted")


def main() -> int:
    parser = argparse.ArgumentParser(description="Captcha provider smoke test")
    parser.add_argument("base_url", help="Base URL (e.g., https://provider.example.com)")
    parser.add_argument("--health-only", action="store_true", help="Only run health check, skip full flow")
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help=f"HTTP timeout seconds (default: {DEFAULT_TIMEOUT_SECONDS:g})",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=DEFAULT_RETRIES,
        help=f"Retries for transient failures (default: {DEFAULT_RETRIES})",
    )
    parser.add_argument("--max-health-attempts", type=int, default=30)
    args = parser.parse_args()

    try:
        client = HttpClient(base_url=args.base_url.rstrip("/"), timeout_seconds=args.timeout, retries=args.retries)
        ctx = SmokeContext(client=client, max_health_attempts=args.max_health_attempts)

        steps = [Step("health", step_health)]
        if args.health_only:
            log("Health-only mode: skipping full flow")
        else:
            steps.extend(
                [
                    Step("provider details", step_details),
                    Step("pow challenge", step_pow_challenge),
                    Step("pow solution", step_pow_solution),
                    Step("dapp verify", step_dapp_verify),
                ]
            )
        return 0 if run_steps(ctx, steps) else 1
    except Exception as e:
        log(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
