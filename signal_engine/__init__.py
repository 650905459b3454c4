"""
Crypto signal generation engine
"""
