"""Slack front end for the Zipline bot.

WHY: Users manage their Zipline account and uploads from inside their
Slack workspace. This package provides a Socket Mode bot with the
/zipline slash command, the paginated upload listing, and relaying of
files shared with the bot.

HOW: bot.py registers listeners on a slack-bolt App; commands.py holds
the subcommand handlers; messages.py builds Block Kit payloads; alerts.py
reports handler errors to the log and an optional webhook.

RULES:
- Socket Mode requires SLACK_BOT_TOKEN and SLACK_APP_TOKEN
- All Slack commands and actions must be ack()'d within 3 seconds
"""
