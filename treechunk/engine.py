"""
Long-lived TreeTagger process used as chunking engine.

Each sentence is written as an SGML start marker, one ``<text>-<tag>`` line per
token, an SGML end marker and the flush sequence. TreeTagger echoes SGML lines
in order, so the output between the two markers holds exactly one compound tag
per token. Whatever the flush sequence produces is discarded before the next
start marker.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import threading
from collections import deque
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

from . import model_storage
from .config import DEFAULT_FLUSH_SEQUENCE
from .doc import Token
from .errors import EngineProcessError
from .models import ResolvedModel
from .tag_mapping import TagSubstitution

logger = logging.getLogger(__name__)

START_MARKER = "<treechunk-sentence-start/>"
END_MARKER = "<treechunk-sentence-end/>"
DEFAULT_ARGS = ["-quiet", "-no-unknown", "-sgml", "-token", "-eps", "0.00000001", "-hyphen-heuristics"]
STDERR_TAIL_LINES = 50

TokenHandler = Callable[[Optional[Token], Optional[str]], None]


def resolve_executable(executable: Optional[str | Path] = None) -> Path:
    """Find the TreeTagger binary: explicit path, $TREETAGGER_HOME/bin, configured executable, then PATH."""
    candidates: List[str] = []
    if executable:
        candidates.append(str(Path(executable).expanduser()))
    home = os.environ.get("TREETAGGER_HOME")
    if home:
        candidates.append(str(Path(home) / "bin" / "tree-tagger"))
    configured = model_storage.get_executable_path()
    if configured:
        candidates.append(str(Path(configured).expanduser()))
    candidates.extend(["tree-tagger", "tagger"])
    for candidate in candidates:
        resolved = shutil.which(candidate)
        if resolved:
            return Path(resolved).resolve()
    if executable:
        raise EngineProcessError(f"TreeTagger executable not found or not executable: {executable}")
    raise EngineProcessError(
        "TreeTagger executable not found. Install TreeTagger and ensure 'tree-tagger' is on PATH, "
        "set TREETAGGER_HOME, or pass an executable path."
    )


class TreeTaggerProcess:
    """Owns one TreeTagger process configured with a chunker model."""

    def __init__(
        self,
        executable: Optional[str | Path] = None,
        *,
        extra_args: Optional[Iterable[str]] = None,
        performance_mode: bool = False,
    ):
        self.executable = executable
        self.extra_args = list(extra_args or [])
        self.performance_mode = performance_mode
        self.model: Optional[ResolvedModel] = None
        self.substitutions = TagSubstitution()
        self.flush_sequence = DEFAULT_FLUSH_SEQUENCE
        self._process: Optional[subprocess.Popen] = None
        self._write_error: Optional[BaseException] = None
        self._stderr_tail: deque = deque(maxlen=STDERR_TAIL_LINES)
        self._stderr_reader: Optional[threading.Thread] = None

    def __enter__(self) -> "TreeTaggerProcess":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def configure(
        self,
        model: ResolvedModel,
        *,
        substitutions: Optional[TagSubstitution] = None,
        flush_sequence: Optional[str] = None,
    ) -> None:
        """Start (or restart) TreeTagger with ``model``. Must not be called while tagging."""
        self.close()
        self.model = model
        self.substitutions = substitutions or TagSubstitution()
        flush = flush_sequence or DEFAULT_FLUSH_SEQUENCE
        self.flush_sequence = flush if flush.endswith("\n") else flush + "\n"
        self._start()

    def command(self) -> List[str]:
        if self.model is None:
            raise EngineProcessError("TreeTagger process has not been configured with a model")
        args = list(DEFAULT_ARGS)
        for arg in self.extra_args:
            if arg not in args:
                args.append(arg)
        return [str(resolve_executable(self.executable)), *args, str(self.model.model_path)]

    def _start(self) -> None:
        cmd = self.command()
        logger.debug("Starting TreeTagger: %s", " ".join(shlex.quote(part) for part in cmd))
        try:
            self._process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding=self.model.metadata.encoding,
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise EngineProcessError(f"Cannot start TreeTagger ({cmd[0]}): {exc}") from exc
        self._stderr_tail = deque(maxlen=STDERR_TAIL_LINES)
        self._stderr_reader = threading.Thread(
            target=self._drain_stderr, args=(self._process, self._stderr_tail), daemon=True
        )
        self._stderr_reader.start()

    @staticmethod
    def _drain_stderr(process: subprocess.Popen, tail: deque) -> None:
        # An unread stderr pipe blocks TreeTagger once the OS buffer fills
        try:
            for line in process.stderr:
                tail.append(line)
        except (OSError, ValueError) as exc:
            logger.debug("Stopped reading TreeTagger stderr: %s", exc)

    def token_text(self, token: Token) -> str:
        return self.substitutions.token_text(token.form, token.xpos)

    def _check_lines(self, tokens: Sequence[Token], lines: Sequence[str]) -> None:
        for token, line in zip(tokens, lines):
            if not (token.form or "").strip():
                raise EngineProcessError(f"Cannot send an empty token to TreeTagger (token {token.id})")
            if "\n" in line or "\r" in line or "\t" in line:
                raise EngineProcessError(f"Token {line!r} contains a line break or tab")
            if line.startswith("<") and line.endswith(">"):
                raise EngineProcessError(f"Token {line!r} would be read as an SGML tag")

    def iter_tags(self, tokens: Iterable[Token]) -> Iterator[Tuple[Token, str]]:
        """Yield ``(token, compound_tag)`` for one sentence, in input order."""
        tokens = list(tokens)
        if not tokens:
            return
        lines = [self.token_text(token) for token in tokens]
        if not self.performance_mode:
            self._check_lines(tokens, lines)
        if not self.is_alive:
            raise EngineProcessError(self._termination_message())

        process = self._process
        payload = "\n".join([START_MARKER, *lines, END_MARKER]) + "\n" + self.flush_sequence
        self._write_error = None
        writer = threading.Thread(target=self._write, args=(process, payload), daemon=True)
        writer.start()
        try:
            self._skip_to_start(process)
            for index, token in enumerate(tokens):
                line = self._read_line(process)
                if line == END_MARKER:
                    raise EngineProcessError(
                        f"TreeTagger returned {index} tagged tokens, expected {len(tokens)}"
                    )
                yield token, self._compound_tag(line)
            line = self._read_line(process)
            if line != END_MARKER:
                raise EngineProcessError(
                    f"TreeTagger returned more tagged tokens than the {len(tokens)} sent (got {line!r})"
                )
        finally:
            writer.join()

    def process(self, tokens: Iterable[Token], handler: TokenHandler) -> None:
        """Send one sentence and call ``handler(token, compound_tag)`` per token.

        The caller signals the end of the sentence itself with ``handler(None, None)``.
        """
        for token, tag in self.iter_tags(tokens):
            handler(token, tag)

    def _write(self, process: subprocess.Popen, payload: str) -> None:
        try:
            process.stdin.write(payload)
            process.stdin.flush()
        except (BrokenPipeError, OSError, ValueError) as exc:
            # The reader reports the failure once it hits end of output
            self._write_error = exc

    def _read_line(self, process: subprocess.Popen) -> str:
        try:
            line = process.stdout.readline()
        except (OSError, ValueError) as exc:
            # stdout was closed by another thread
            raise EngineProcessError(f"TreeTagger output closed while reading: {exc}") from exc
        if not line:
            raise EngineProcessError(self._termination_message())
        return line.rstrip("\r\n")

    def _skip_to_start(self, process: subprocess.Popen) -> None:
        discarded = 0
        while self._read_line(process) != START_MARKER:
            discarded += 1
        if discarded:
            logger.debug("Discarded %d lines of flush output", discarded)

    @staticmethod
    def _compound_tag(line: str) -> str:
        fields = line.split("\t")
        return (fields[1] if len(fields) > 1 else fields[0]).strip()

    def _termination_message(self) -> str:
        process = self._process
        if process is None:
            return "TreeTagger process is not running"
        try:
            returncode = process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            return "TreeTagger stopped producing output"
        if self._stderr_reader is not None:
            self._stderr_reader.join(timeout=5)
        stderr = "".join(self._stderr_tail).strip()
        message = f"TreeTagger terminated unexpectedly with exit code {returncode}"
        if stderr:
            message += f": {stderr}"
        if self._write_error is not None:
            message += f" (write failed: {self._write_error})"
        return message

    def close(self) -> None:
        process, self._process = self._process, None
        if process is None:
            return
        try:
            if process.stdin and not process.stdin.closed:
                process.stdin.close()
        except (BrokenPipeError, OSError):
            logger.debug("TreeTagger stdin already closed")
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        reader, self._stderr_reader = self._stderr_reader, None
        if reader is not None:
            reader.join(timeout=5)
        for stream in (process.stdout, process.stderr):
            if stream is not None:
                stream.close()
