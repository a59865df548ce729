"""Tests for the subprocess runner."""

import sys

import pytest

from license_fetcher.process import (
    CommandFailed,
    CommandNotFound,
    CommandTimeout,
    run_command,
)


@pytest.mark.asyncio
async def test_captures_output(tmp_path) -> None:
    result = await run_command(
        [sys.executable, "-c", "import os; print(os.getcwd())"],
        cwd=tmp_path,
    )

    assert result.stdout.strip() == str(tmp_path)
    assert result.args[0] == sys.executable


@pytest.mark.asyncio
async def test_extra_environment() -> None:
    result = await run_command(
        [sys.executable, "-c", "import os; print(os.environ['LF_TEST'])"],
        env={"LF_TEST": "value"},
    )

    assert result.stdout.strip() == "value"


@pytest.mark.asyncio
async def test_nonzero_exit() -> None:
    """Test that a failing command carries its stderr."""
    with pytest.raises(CommandFailed) as excinfo:
        await run_command(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"]
        )

    assert excinfo.value.returncode == 3
    assert excinfo.value.stderr == "boom"
    assert "boom" in str(excinfo.value)


@pytest.mark.asyncio
async def test_missing_executable() -> None:
    with pytest.raises(CommandNotFound):
        await run_command(["definitely-not-an-installed-program-xyz"])


@pytest.mark.asyncio
async def test_timeout() -> None:
    with pytest.raises(CommandTimeout):
        await run_command([sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.2)
