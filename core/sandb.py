"""
core/sandb.py - Isolated Code Execution Unit

This module runs untrusted Python code in a separate interpreter process
and sends back one framed result.

Two layers confine the child:

- Namespace isolation (Linux, bubblewrap): the child gets its own user,
  pid, ipc and mount namespaces, a fresh /proc, an empty /tmp and a
  read-only view of the system and interpreter directories only. The
  project tree, the home directory and other processes do not exist
  inside it. Network access is kept.
- The in-process guard (always on): an audit hook installed before the
  code is compiled. File reads are limited to the standard library and
  the scratch directory, writes to the scratch directory. /proc is never
  readable. Process creation, signals, ctypes, trace hooks and new
  subinterpreters are refused with PermissionError.

The guard alone is not a kernel boundary: native extension code can step
around audit hooks. Isolation.NAMESPACE fails closed when bubblewrap is
missing; Isolation.AUTO falls back to the guard with a warning.

Responsibilities:
- Spawn one interpreter per execution (python -I -B)
- Evaluate the code as the body of an async function taking `console`
- Capture console.log(...) and print(...) calls as an ordered log list
- Return {logs, result} or {logs, error}; never raise for user errors
- Enforce an optional execution deadline

Rules:
- Child runs with a scrubbed environment in a throwaway directory
- Code travels as JSON on stdin; the result comes back on a line that
  starts with a per-execution random boundary (uuid4), which the code
  never sees
- A timed-out child is killed
"""

import asyncio
import json
import logging
import os
import shutil
import sys
import tempfile
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import SandboxError

logger = logging.getLogger(__name__)

BOUNDARY_PREFIX = "__sandbox_frame_"

# Seconds allowed for the one-off bubblewrap self-test
NAMESPACE_CHECK_TIMEOUT = 15.0

# Mounted read-only inside the namespace when present on the host
SYSTEM_PATHS = (
    "/usr", "/bin", "/sbin", "/lib", "/lib32", "/lib64",
    "/etc/alternatives", "/etc/ld.so.cache", "/etc/localtime",
    "/etc/resolv.conf", "/etc/hosts", "/etc/nsswitch.conf",
    "/etc/ssl", "/etc/pki", "/etc/ca-certificates",
)

_UNSET = object()


class Isolation(str, Enum):
    """How the child interpreter is confined."""
    AUTO = "auto"            # namespace when usable, otherwise guard
    NAMESPACE = "namespace"  # bubblewrap required
    GUARD = "guard"          # in-process audit hook only


RUNNER_SOURCE = r'''
import ast
import asyncio
import io
import json
import os
import sys
import sysconfig

BLOCKED_EVENTS = frozenset({
    "os.system", "os.exec", "os.spawn", "os.posix_spawn", "os.fork",
    "os.forkpty", "os.kill", "os.killpg", "os.startfile", "pty.spawn",
    "signal.pthread_kill", "subprocess.Popen",
    "code.__new__", "sys.settrace", "sys.setprofile",
    "sys.monitoring.register_callback", "sys.remote_exec",
    "gc.get_objects", "gc.get_referrers", "gc.get_referents",
    "cpython.PyInterpreterState_New",
    "sqlite3.enable_load_extension", "sqlite3.load_extension",
})
BLOCKED_MODULES = frozenset({
    "ctypes", "_ctypes", "_posixsubprocess", "_posixshmem", "_dbm", "_gdbm",
    "_testcapi", "_testinternalcapi", "_xxsubinterpreters", "_interpreters",
    "_xxinterpchannels", "_interpchannels", "_interpqueues",
})
LISTING_EVENTS = frozenset({"os.listdir", "os.scandir"})
# event -> how many leading arguments are paths
MUTATING_EVENTS = {
    "os.chflags": 1, "os.chmod": 1, "os.chown": 1, "os.lchflags": 1,
    "os.link": 2, "os.mkdir": 1, "os.remove": 1, "os.rename": 2,
    "os.rmdir": 1, "os.symlink": 2, "os.truncate": 1, "os.utime": 1,
}
DEVICES = frozenset({"/dev/null", "/dev/zero", "/dev/random", "/dev/urandom"})


def _install_guard(scratch):
    # Everything the hook touches is bound here; names looked up at call
    # time (builtins, module attributes) could be replaced by the code.
    paths = sysconfig.get_paths()
    readable = [os.path.realpath(paths["stdlib"]), os.path.realpath(paths["platstdlib"]), scratch]
    if os.path.isdir("/usr/share/zoneinfo"):
        readable.append("/usr/share/zoneinfo")
    read_roots = tuple((root, root.rstrip("/") + "/") for root in readable)
    write_roots = ((scratch, scratch + "/"),)

    blocked_events = BLOCKED_EVENTS
    blocked_modules = BLOCKED_MODULES
    listing_events = LISTING_EVENTS
    mutating_events = dict(MUTATING_EVENTS)
    devices = DEVICES
    denied = PermissionError
    os_error = OSError
    kind_of = type
    subclass = issubclass
    str_type = str
    bytes_type = bytes
    int_type = int
    as_str = str.__str__
    decode = bytes.decode
    lstat = os.lstat
    readlink = os.readlink
    getcwd = os.getcwd
    write_flags = os.O_WRONLY | os.O_RDWR | os.O_APPEND | os.O_CREAT | os.O_TRUNC

    def resolve(path):
        if not path.startswith("/"):
            path = getcwd() + "/" + path
        pending = path.split("/")
        pending.reverse()
        parts = []
        hops = 0
        while pending:
            name = pending.pop()
            if name == "" or name == ".":
                continue
            if name == "..":
                if parts:
                    parts.pop()
                continue
            parts.append(name)
            current = "/" + "/".join(parts)
            try:
                mode = lstat(current).st_mode
            except os_error:
                continue
            if mode & 0o170000 != 0o120000:
                continue
            hops += 1
            if hops > 40:
                raise denied("sandbox: too many levels of symbolic links")
            target = readlink(current)
            parts.pop()
            if target.startswith("/"):
                parts = []
            more = target.split("/")
            more.reverse()
            pending.extend(more)
        return "/" + "/".join(parts)

    def within(path, roots):
        for root, prefix in roots:
            if path == root or path.startswith(prefix):
                return True
        return False

    def check(path, writing):
        kind = kind_of(path)
        if kind is int_type:
            return
        if path is None:
            path = getcwd()
        elif kind is bytes_type:
            path = decode(path, "utf-8", "surrogateescape")
        elif subclass(kind, str_type):
            path = as_str(path)
        else:
            raise denied("sandbox: file paths must be str or bytes")
        target = resolve(path)
        if target in devices:
            return
        if within(target, write_roots if writing else read_roots):
            return
        raise denied(f"sandbox: access to {path} is not allowed")

    def guard(event, args):
        if event in blocked_events or event.startswith("ctypes."):
            raise denied(f"sandbox: {event} is not allowed")
        if event == "open":
            mode, flags = args[1], args[2]
            if kind_of(flags) is int_type:
                writing = (flags & write_flags) != 0
            else:
                writing = False
                if kind_of(mode) is str_type:
                    for ch in mode:
                        if ch in "wax+":
                            writing = True
            check(args[0], writing)
        elif event == "import":
            if args[0] in blocked_modules:
                raise denied(f"sandbox: import of {args[0]} is not allowed")
        elif event in listing_events:
            check(args[0] if args else None, False)
        elif event in mutating_events:
            for path in args[:mutating_events[event]]:
                check(path, True)
        elif event == "sqlite3.connect":
            if args and args[0] != ":memory:":
                check(args[0], True)

    sys.addaudithook(guard)

    # Already-imported helpers that could start processes without an audit event
    for name in ("_posixsubprocess", "_ctypes", "ctypes"):
        sys.modules.pop(name, None)
    subprocess = sys.modules.get("subprocess")
    if subprocess is not None:
        for attr in ("_posixsubprocess", "_fork_exec"):
            if hasattr(subprocess, attr):
                delattr(subprocess, attr)


def _main():
    payload = json.loads(sys.stdin.buffer.read().decode("utf-8") or "{}")
    boundary = payload.get("boundary", "")
    code = payload.get("code", "")
    channel = sys.stdout
    real_print = print
    logs = []

    def _print(*args, sep=" ", end="\n", file=None, flush=False):
        if file is not None and file is not sys.stdout:
            real_print(*args, sep=sep, end=end, file=file, flush=flush)
            return
        logs.append((" " if sep is None else sep).join(str(a) for a in args))

    class Console:
        def log(self, *args):
            logs.append(" ".join(str(a) for a in args))

        info = warn = error = debug = log

    def _emit(frame):
        frame["logs"] = logs
        channel.write(boundary + json.dumps(frame, default=repr) + "\n")
        channel.flush()

    if os.name == "posix":
        _install_guard(os.path.realpath(os.getcwd()))

    sys.stdout = io.StringIO()
    try:
        template = ast.parse("async def __sandbox_main__(console):\n    pass\n")
        body = ast.parse(code, filename="<sandbox>", mode="exec").body
        template.body[0].body = body or [ast.Pass()]
        ast.fix_missing_locations(template)
        namespace = {"__name__": "__sandbox__", "print": _print}
        exec(compile(template, "<sandbox>", "exec"), namespace)
        result = asyncio.run(namespace["__sandbox_main__"](Console()))
        frame = {"type": "done", "result": result}
    except BaseException as exc:
        frame = {"type": "error", "error": str(exc) or type(exc).__name__}
    finally:
        stray = sys.stdout.getvalue()
        sys.stdout = channel
    logs.extend(line for line in stray.splitlines() if line)
    _emit(frame)


_main()
'''


@dataclass
class SandboxOutcome:
    """Result of one sandboxed execution.

    Attributes:
        logs: Captured console.log / print lines, in order
        result: Value returned by the code (JSON-compatible or repr string)
        error: Error message if the code raised, failed to compile, or timed out
    """
    logs: List[str] = field(default_factory=list)
    result: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"logs": self.logs, "error": self.error}
        return {"logs": self.logs, "result": self.result}


class SandboxRunner:
    """Runs code in a fresh, confined interpreter process.

    Example:
        runner = SandboxRunner(timeout=10)
        outcome = await runner.run("console.log('hi')\\nreturn 6 * 7")
        outcome.to_dict()  # {"logs": ["hi"], "result": 42}
    """

    def __init__(
        self,
        timeout: Optional[float] = 30.0,
        python_executable: Optional[str] = None,
        isolation: Isolation = Isolation.AUTO,
    ):
        """Initialize the runner.

        Args:
            timeout: Seconds before the child is killed (None = no deadline)
            python_executable: Interpreter to use (defaults to the current one)
            isolation: auto, namespace (bubblewrap required) or guard
        """
        self.timeout = timeout
        self.python_executable = python_executable or sys.executable
        self.isolation = Isolation(isolation)
        self.bwrap = None if self.isolation == Isolation.GUARD else shutil.which("bwrap")
        self._namespace_ok: Optional[bool] = None
        self._warned = False

    def _child_env(self, scratch: str) -> Dict[str, str]:
        env = {"PYTHONIOENCODING": "utf-8", "HOME": scratch, "TMPDIR": scratch}
        # Windows cannot start an interpreter without SYSTEMROOT
        if os.name == "nt" and "SYSTEMROOT" in os.environ:
            env["SYSTEMROOT"] = os.environ["SYSTEMROOT"]
        return env

    def _python_roots(self) -> List[str]:
        """Interpreter directories to expose inside the namespace."""
        candidates = {
            sys.prefix, sys.base_prefix, sys.exec_prefix, sys.base_exec_prefix,
            os.path.dirname(self.python_executable),
            os.path.dirname(os.path.realpath(self.python_executable)),
        }
        roots = set()
        for path in candidates:
            path = os.path.realpath(path)
            if path != "/" and os.path.isdir(path):
                roots.add(path)
        return sorted(roots)

    def _namespace_argv(self, scratch: str) -> List[str]:
        """bubblewrap prefix: only system dirs, the interpreter and scratch are visible."""
        argv = [
            self.bwrap,
            "--unshare-all", "--share-net",
            "--die-with-parent", "--new-session", "--clearenv",
        ]
        for path in SYSTEM_PATHS:
            if os.path.islink(path):
                argv += ["--symlink", os.readlink(path), path]
            else:
                argv += ["--ro-bind-try", path, path]
        for path in self._python_roots():
            argv += ["--ro-bind", path, path]
        argv += [
            "--proc", "/proc",
            "--dev", "/dev",
            "--tmpfs", "/tmp",
            "--bind", scratch, scratch,
            "--chdir", scratch,
        ]
        for key, value in self._child_env(scratch).items():
            argv += ["--setenv", key, value]
        return argv + ["--"]

    async def _namespace_works(self) -> bool:
        """Start a trivial interpreter under bubblewrap once."""
        if not self.bwrap:
            return False
        with tempfile.TemporaryDirectory(prefix="sandbox_") as scratch:
            argv = self._namespace_argv(scratch) + [self.python_executable, "-I", "-c", "pass"]
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                    env=self._child_env(scratch),
                )
            except OSError as e:
                logger.debug(f"bubblewrap could not start: {e}")
                return False
            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=NAMESPACE_CHECK_TIMEOUT)
            except asyncio.TimeoutError:
                await self._kill(process)
                return False
        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[-300:]
            logger.debug(f"bubblewrap self-test failed ({process.returncode}): {detail}")
            return False
        return True

    async def resolve_isolation(self) -> Isolation:
        """The isolation actually used for the next run.

        Raises:
            SandboxError: If namespace isolation is required but unusable
        """
        if self.isolation == Isolation.GUARD:
            return Isolation.GUARD

        if self._namespace_ok is None:
            self._namespace_ok = await self._namespace_works()
        if self._namespace_ok:
            return Isolation.NAMESPACE

        if self.isolation == Isolation.NAMESPACE:
            raise SandboxError("Namespace isolation requires a working bubblewrap (bwrap)")
        if not self._warned:
            logger.warning("bubblewrap not usable, sandbox runs with the in-process guard only")
            self._warned = True
        return Isolation.GUARD

    async def run(self, code: str, timeout: Any = _UNSET) -> SandboxOutcome:
        """Execute code and wait for its single result.

        Args:
            code: Python source, evaluated as the body of an async function
            timeout: Override the runner's deadline for this call

        Returns:
            SandboxOutcome (errors inside the code are reported, not raised)

        Raises:
            SandboxError: If the interpreter cannot be started
        """
        deadline = self.timeout if timeout is _UNSET else timeout
        boundary = f"{BOUNDARY_PREFIX}{uuid.uuid4().hex}__"
        payload = json.dumps({"boundary": boundary, "code": code or ""})
        mode = await self.resolve_isolation()

        with tempfile.TemporaryDirectory(prefix="sandbox_") as scratch:
            argv = [self.python_executable, "-I", "-B", "-c", RUNNER_SOURCE]
            if mode == Isolation.NAMESPACE:
                argv = self._namespace_argv(scratch) + argv
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=scratch,
                    env=self._child_env(scratch),
                )
            except OSError as e:
                raise SandboxError(f"Could not start sandbox interpreter: {e}") from e

            logger.debug(f"Sandbox process started (PID: {process.pid}, isolation={mode.value})")

            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(payload.encode("utf-8")),
                    timeout=deadline,
                )
            except asyncio.TimeoutError:
                logger.warning(f"Sandbox timeout after {deadline}s, killing process")
                await self._kill(process)
                return SandboxOutcome(error=f"Execution timed out after {deadline}s")

        return self._read_frame(boundary, stdout, stderr, process.returncode)

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            process.kill()
            await process.wait()

    def _read_frame(
        self,
        boundary: str,
        stdout: bytes,
        stderr: bytes,
        returncode: Optional[int],
    ) -> SandboxOutcome:
        """Extract the result frame from the child's stdout."""
        frame = None
        for line in stdout.decode("utf-8", errors="replace").splitlines():
            if line.startswith(boundary):
                frame = line[len(boundary):]

        if frame is None:
            detail = stderr.decode("utf-8", errors="replace").strip()[-500:]
            logger.error(f"Sandbox produced no result (exit code {returncode}): {detail}")
            return SandboxOutcome(
                error=f"Sandbox exited with code {returncode} without a result"
                + (f": {detail}" if detail else ""),
            )

        try:
            data = json.loads(frame)
        except json.JSONDecodeError as e:
            return SandboxOutcome(error=f"Failed to parse sandbox result: {e}")

        logs = [str(line) for line in data.get("logs", [])]
        if data.get("type") == "error":
            return SandboxOutcome(logs=logs, error=str(data.get("error")))
        return SandboxOutcome(logs=logs, result=data.get("result"))
