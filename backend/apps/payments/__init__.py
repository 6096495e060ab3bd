"""
Payments app: payment and setup intents, saved cards and wallet top-ups.
"""
