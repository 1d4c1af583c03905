# trimmer/printer.py
# Centralized CLI output: results on stdout, errors on stderr,
# advisory warnings in between.

import os
import sys
from typing import Iterable, Optional


class OutputPrinter:
    """
    Output formatter for the audio trimmer CLI.

    Three tiers: a symbol-led headline, an aligned detail block, and an
    arrow-prefixed hint. Color is optional and honours NO_COLOR.
    """

    SYMBOLS : dict[str, str] = {
        "success" : "✅",
        "error"   : "❌",
        "warning" : "⚠️ ",
        "info"    : "ℹ️ ",
        "hint"    : "→",
        "bullet"  : "•",
    }

    COLORS : dict[str, str] = {
        "green"  : "32",
        "red"    : "31",
        "yellow" : "33",
        "cyan"   : "36",
        "dim"    : "90",
    }

    COL_WIDTH : int = 10  # detail key column

    def __init__(self, quiet : bool = False, no_color : bool = False) -> None:
        self.quiet    : bool = quiet
        self.no_color : bool = no_color or bool(os.environ.get("NO_COLOR", ""))

    def _colorize(self, text : str, code : str) -> str:
        """Wrap text in an ANSI color code unless color is off."""
        if self.no_color:
            return text
        return f"\033[{code}m{text}\033[0m"

    def _details(self, details : dict[str, str]) -> None:
        for key, value in details.items():
            dim_key : str = self._colorize(f"{key:<{self.COL_WIDTH}}", self.COLORS["dim"])
            print(f"    {dim_key}: {value}")

    def success(self, title : str, details : Optional[dict[str, str]] = None) -> None:
        """Headline a finished trim or conversion, with an optional detail block."""
        if self.quiet:
            return
        symbol : str = self._colorize(self.SYMBOLS["success"], self.COLORS["green"])
        label  : str = self._colorize(title, self.COLORS["green"])
        print(f"\n{symbol}  {label}")
        if details:
            self._details(details)

    def report(self, title : str, details : dict[str, str]) -> None:
        """Neutral headline + detail block, used by --analyze-only."""
        if self.quiet:
            return
        symbol : str = self._colorize(self.SYMBOLS["info"], self.COLORS["cyan"])
        print(f"\n{symbol} {title}")
        self._details(details)

    def error(self, message : str, hint : Optional[str] = None) -> None:
        """Print an error to stderr. Never silenced by quiet mode."""
        symbol : str = self._colorize(self.SYMBOLS["error"], self.COLORS["red"])
        msg    : str = self._colorize(message, self.COLORS["red"])
        print(f"\n{symbol}  {msg}", file=sys.stderr)
        if hint:
            h : str = self._colorize(
                f"{self.SYMBOLS['hint']} {hint}", self.COLORS["cyan"]
            )
            print(f"    {h}", file=sys.stderr)

    def warning(
        self,
        message : str,
        hint : Optional[str] = None,
        tips : Optional[Iterable[str]] = None,
    ) -> None:
        """Print an advisory warning with an optional hint and bullet tips."""
        if self.quiet:
            return
        symbol : str = self._colorize(self.SYMBOLS["warning"], self.COLORS["yellow"])
        msg    : str = self._colorize(message, self.COLORS["yellow"])
        print(f"\n{symbol} {msg}")
        if hint:
            h : str = self._colorize(
                f"{self.SYMBOLS['hint']} {hint}", self.COLORS["cyan"]
            )
            print(f"    {h}")
        for tip in tips or ():
            print(f"    {self.SYMBOLS['bullet']} {tip}")

    def info(self, message : str) -> None:
        if self.quiet:
            return
        symbol : str = self._colorize(self.SYMBOLS["info"], self.COLORS["cyan"])
        print(f"{symbol} {message}")
