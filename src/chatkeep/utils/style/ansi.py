"""ANSI escape sequences for coloured terminal output."""

reset = "\033[0m"
bold = "\033[1m"

grey = "\033[90m"
red = "\033[91m"
green = "\033[92m"
yellow = "\033[93m"
blue = "\033[94m"
magenta = "\033[95m"
cyan = "\033[96m"
