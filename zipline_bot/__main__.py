"""Package entry point for ``python -m zipline_bot``.

WHY: Lets the bot be started without the installed console script.

RULES:
- This file must exist for ``python -m zipline_bot`` to work
- Delegates to zipline_bot.slack.bot.main()
"""

from zipline_bot.slack.bot import main

if __name__ == "__main__":
    main()
