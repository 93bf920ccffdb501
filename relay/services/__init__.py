"""
Services package
Lifecycle engine, admission control, storage and monitoring
"""
