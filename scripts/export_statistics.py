from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from backoffice.clients.supabase import service_client
from backoffice.exporters.excel import build_statistics_workbook
from backoffice.logging import configure_logging
from backoffice.services.statistics import load_statistics


def _plain(value: Any) -> Any:
    return value.model_dump() if isinstance(value, BaseModel) else value


async def main() -> None:
    ap = argparse.ArgumentParser(description="Compute dashboard statistics and write them to a file")
    ap.add_argument("--format", choices=["xlsx", "json"], default="xlsx")
    ap.add_argument("--out", default="data/statistics.xlsx")
    args = ap.parse_args()

    configure_logging()
    stats = await load_statistics(service_client())
    Path(args.out).parent.mkdir(parents=True, exist_ok=True)

    if args.format == "xlsx":
        build_statistics_workbook(stats).save(args.out)
        print(f"Wrote workbook: {args.out} ({len(stats)} statistics)")
    else:
        p = args.out
        if not p.lower().endswith(".json"):
            p += ".json"
        with open(p, "w", encoding="utf-8") as f:
            json.dump({k: _plain(v) for k, v in stats.items()}, f, ensure_ascii=False, indent=2)
        print(f"Wrote JSON: {p} ({len(stats)} statistics)")


if __name__ == "__main__":
    asyncio.run(main())
