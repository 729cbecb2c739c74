from __future__ import annotations

import json
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from quote_board.main import app
SITE_API_DIR = REPO_ROOT / "docs" / "site" / "api"

# consumer actions the board must expose
REQUIRED_ROUTES = {
    ("get", "/v1/quotes"),
    ("post", "/v1/quotes/refresh"),
    ("get", "/v1/view"),
    ("put", "/v1/view"),
    ("get", "/v1/board/status"),
}


def endpoint_rows(openapi: dict) -> list[tuple[str, str, str]]:
    rows = []
    for path, operations in sorted(openapi["paths"].items()):
        for method, operation in sorted(operations.items()):
            rows.append((method.upper(), path, operation.get("summary", "")))
    return rows


def main() -> None:
    openapi = app.openapi()
    present = {(method, path) for path, ops in openapi["paths"].items() for method in ops}
    missing = sorted(REQUIRED_ROUTES - present)
    if missing:
        raise SystemExit(f"missing routes: {missing}")

    SITE_API_DIR.mkdir(parents=True, exist_ok=True)
    (SITE_API_DIR / "openapi.json").write_text(
        json.dumps(openapi, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )

    lines = ["# Quote Board API", "", "| Method | Path | Summary |", "|---|---|---|"]
    lines += [f"| {m} | `{p}` | {s} |" for m, p, s in endpoint_rows(openapi)]
    (SITE_API_DIR / "endpoints.md").write_text("\n".join(lines) + "\n", encoding="utf-8")


if __name__ == "__main__":
    main()
