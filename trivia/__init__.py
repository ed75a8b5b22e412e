"""
Bilingual (Arabic/English) trivia session engine and Discord bot.
"""
