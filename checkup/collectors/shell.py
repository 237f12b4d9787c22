"""
Subprocess and file helpers shared by the fact collectors.

Collectors never raise for a missing tool, a non-zero exit or a permission
problem: they return None (or an Unavailable/Skipped marker) and the engine
turns that into a neutral outcome.
"""

import asyncio
import logging
import os
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

COMMAND_NOT_FOUND = 127
TIMED_OUT = 124

# Стабильный вывод для разбора (как LC_ALL в исходном скрипте)
_ENV = dict(os.environ, LC_ALL="C.UTF-8", LANG="C.UTF-8")


async def run_cmd(cmd: Sequence[str], timeout_s: float = 30.0) -> Tuple[int, str, str]:
    """
    Run a command and return:
      - return code (rc)
      - stdout (string)
      - stderr (string)

    A missing executable gives rc=127 and a timeout rc=124, like the shell.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=_ENV,
        )
    except FileNotFoundError:
        return COMMAND_NOT_FOUND, "", f"{cmd[0]}: command not found"
    except PermissionError as e:
        return 126, "", str(e)

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return TIMED_OUT, "", f"{cmd[0]}: timed out after {timeout_s:g}s"
    except asyncio.CancelledError:
        proc.kill()
        raise

    return (
        proc.returncode,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
    )


async def output(
    cmd: Sequence[str],
    ok_codes: Optional[Iterable[int]] = (0,),
    timeout_s: float = 30.0,
) -> Optional[str]:
    """
    stdout команды или None, если команда недоступна / завершилась с ошибкой.

    Args:
        cmd: Команда
        ok_codes: Допустимые коды возврата (None = любой, кроме 126/127/124)
        timeout_s: Таймаут
    """
    rc, stdout, stderr = await run_cmd(cmd, timeout_s=timeout_s)
    if rc in (COMMAND_NOT_FOUND, TIMED_OUT, 126):
        logger.debug(f"{' '.join(cmd)}: rc={rc} {stderr.strip()}")
        return None
    if ok_codes is not None and rc not in tuple(ok_codes):
        logger.debug(f"{' '.join(cmd)}: rc={rc} {stderr.strip()}")
        return None
    return stdout


def read_text(path: Path) -> Optional[str]:
    """Содержимое файла или None."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return None


async def read_privileged(path: Path) -> Optional[str]:
    """Прочитать файл; при PermissionError повторить через sudo cat."""
    path = Path(path)
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except PermissionError:
        return await output(["sudo", "cat", str(path)])
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return None


async def list_files(directory: Path, exclude: Sequence[str] = ()) -> Optional[List[Path]]:
    """
    Все файлы директории (рекурсивно, отсортированы).

    Returns:
        Список путей или None, если директории нет
    """
    directory = Path(directory)
    if not directory.is_dir():
        return None
    # rglob молча пропускает нечитаемые директории
    if os.access(directory, os.R_OK | os.X_OK):
        files = [p for p in directory.rglob("*") if p.is_file()]
    else:
        listing = await output(["sudo", "find", str(directory), "-type", "f"])
        if listing is None:
            return None
        files = [Path(line) for line in listing.splitlines() if line.strip()]
    return sorted(p for p in files if not any(fnmatch(p.name, pattern) for pattern in exclude))


async def render_files(paths: Sequence[Path], exclude: Sequence[str] = ("*.save",)) -> str:
    """
    Собрать файлы и директории в один текст для snapshot'а.

    Каждый файл предваряется заголовком "==> path <==", отсутствующий
    путь отмечается "(missing)", так что исчезновение файла тоже видно в diff.
    """
    chunks: List[str] = []
    for path in paths:
        path = Path(path)
        files = await list_files(path, exclude)
        if files is None:
            files = [path]
        for file_path in files:
            text = await read_privileged(file_path)
            if text is None:
                chunks.append(f"==> {file_path} (missing) <==\n")
                continue
            if text and not text.endswith("\n"):
                text += "\n"
            chunks.append(f"==> {file_path} <==\n{text}")
    return "".join(chunks)


async def run_interactive(cmd: Sequence[str]) -> int:
    """
    Run a command attached to the terminal (sudo password, apt confirmations).

    Returns:
        Return code (127 if the executable is missing)
    """
    try:
        proc = await asyncio.create_subprocess_exec(*cmd)
    except FileNotFoundError:
        return COMMAND_NOT_FOUND
    try:
        return await proc.wait()
    except asyncio.CancelledError:
        proc.kill()
        raise
