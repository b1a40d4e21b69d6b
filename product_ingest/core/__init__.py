"""
Models, validation and mapping shared by every pipeline stage.
"""
