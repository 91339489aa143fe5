# Colour / output helpers for operator-facing messages.
# Logging goes to the log file; these are for the person at the keyboard.

import os
import sys
from typing import Callable

from colorama import just_fix_windows_console, Fore as F, Style as S

_COLOR_MONO = False

def fncInitConsole():
    """Enable ANSI handling on Windows consoles; a no-op elsewhere."""
    just_fix_windows_console()

STYLES = {
    "info":     ("cyan", "[*] "),
    "success":  ("green", "[+] "),
    "warning":  ("yellow", "[!] "),
    "error":    ("red", "[-] "),
    "disabled": ("gray", "[X] "),
    "plain":    (None, ""),
}

def fncSetColorMode(monochrome: bool):
    """Call once after parsing args to disable colours when needed."""
    global _COLOR_MONO
    _COLOR_MONO = bool(monochrome)

def fncWantColor(stream=None):
    """Decide if we should output ANSI colours."""
    if _COLOR_MONO:
        return False
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    stream = stream or sys.stdout
    try:
        return stream.isatty()
    except Exception:
        return False

def fncColor(text: str, *styles: str) -> str:
    """fncColor('Hello', 'green', 'bold') -> styled text (or plain if disabled)."""
    if not fncWantColor() or not styles:
        return text
    m = {
        "red": F.RED, "green": F.GREEN, "yellow": F.YELLOW, "blue": F.BLUE,
        "magenta": F.MAGENTA, "cyan": F.CYAN, "white": F.WHITE, "gray": F.LIGHTBLACK_EX,
        "bold": S.BRIGHT, "dim": S.DIM,
    }
    seq = "".join(m.get(s, "") for s in styles if s)
    return f"{seq}{text}{S.RESET_ALL}"

# Function: fncFormatMessage
# Purpose : Plain (uncoloured) rendering of a typed message.
# Notes   : Used for the report file so it stays free of ANSI codes.
def fncFormatMessage(message: str, msg_type: str = "info") -> str:
    _, tag = STYLES.get(msg_type, (None, ""))
    return f"{tag}{message}"

# Function: fncPrintMessage
# Purpose : Human-friendly coloured console messages.
# Notes   : Unknown types print untagged.
def fncPrintMessage(message: str, msg_type: str = "info"):
    colour, tag = STYLES.get(msg_type, (None, ""))
    if tag:
        print(fncColor(tag, colour) + message)
    else:
        print(message)

def fncHeading(msg: str): print(fncColor(f"\n=== {msg} ===", "blue", "bold"))

# Function: fncAsk
# Purpose : Prompt the operator and return the stripped answer.
# Notes   : `ask` is injectable so workflows can be driven from tests; EOF counts as empty.
def fncAsk(prompt: str, ask: Callable[[str], str] = input) -> str:
    try:
        return ask(fncColor(prompt, "yellow")).strip()
    except EOFError:
        return ""
