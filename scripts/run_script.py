#!/usr/bin/env python
"""Debug: run a script (file argument or stdin) with the core commands and macros loaded."""
import asyncio
import logging
import sys

import aiofiles

from slashscript.core.config import get_settings
from slashscript.schemas import RunOptions
from slashscript.services.commands import ScriptRunner, register_all_builtins as register_commands
from slashscript.services.macros import register_all_builtins as register_macros
from slashscript.services.variables import variable_store

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
)

register_macros()
register_commands()


def progress(done, total):
    print(f"  [{done}/{total}]", file=sys.stderr)


async def main(argv):
    runner = ScriptRunner()
    options = RunOptions(abort_on_error=settings.abort_on_error,
                         on_progress=progress if settings.debug else None)

    if len(argv) > 1:
        result = await runner.run_with_result(await _read(argv[1]), options=options)
    else:
        result = await runner.run_with_result(sys.stdin.read(), options=options)

    print(result.pipe)
    for error in result.errors:
        print(f"error: {error}", file=sys.stderr)
    print(f"local vars: {dict((k, variable_store.local.get(k)) for k in variable_store.local)}", file=sys.stderr)
    return 1 if result.is_error else 0


async def _read(path):
    async with aiofiles.open(path, encoding="utf-8") as fh:
        return await fh.read()


sys.exit(asyncio.run(main(sys.argv)))
