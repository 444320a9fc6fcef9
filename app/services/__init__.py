"""Services module - Business logic layer"""
