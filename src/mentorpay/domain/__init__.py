"""Domain layer for mentorpay.

Services live in their own modules (``mentorpay.domain.session``,
``mentorpay.domain.receipt`` and so on) and are imported from there.
"""
