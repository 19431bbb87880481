"""Two-phase commit participant for the rental car provider"""
