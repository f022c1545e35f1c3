"""
Contract domain: AVR approval, payments, amendments.
"""
