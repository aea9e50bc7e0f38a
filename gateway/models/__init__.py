"""
Gateway request/response models.
"""
