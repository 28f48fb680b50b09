"""
Cogs package for the spam filter bot.

Contains:
- spamfilter: message classification, hiding/marking and moderator commands
"""
