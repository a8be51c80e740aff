from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod

from .models import LoadResult, Verdict
from .yaml_config import get_strings


class OutputHandler(ABC):
    @abstractmethod
    def emit_load(self, result: LoadResult) -> None: ...

    @abstractmethod
    def emit_verdict(self, candidate: str, verdict: Verdict, protection_enabled: bool) -> None: ...


class StdoutHandler(OutputHandler):
    def emit_load(self, result: LoadResult) -> None:
        updated = result.last_update.isoformat() if result.last_update else "-"
        print(f"Risk list: {result.count} domains (source: {result.source}, updated: {updated})")

    def emit_verdict(self, candidate: str, verdict: Verdict, protection_enabled: bool) -> None:
        strings = get_strings()
        if verdict.is_risky:
            label = strings["risky_label"]
        elif verdict.is_overridden:
            label = strings["overridden_label"]
        else:
            label = strings["safe_label"]
        line = f"[{label:10s}] {candidate}"
        if verdict.matched_domain:
            line += f" (listed: {verdict.matched_domain}) -- {verdict.reason}"
        print(line)
        if verdict.is_risky and not protection_enabled:
            print(f"             {strings['protection_off_notice']}")


class JsonHandler(OutputHandler):
    """One JSON object per line, for scripting."""

    def emit_load(self, result: LoadResult) -> None:
        print(result.model_dump_json(), file=sys.stdout)

    def emit_verdict(self, candidate: str, verdict: Verdict, protection_enabled: bool) -> None:
        payload = {"candidate": candidate, **verdict.model_dump(by_alias=True), "protectionEnabled": protection_enabled}
        print(json.dumps(payload, ensure_ascii=False), file=sys.stdout)
