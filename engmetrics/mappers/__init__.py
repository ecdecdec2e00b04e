"""
Field mappers: pure translation of provider records into canonical shapes.
"""
