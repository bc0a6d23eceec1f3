"""
Scripts Module

Management utilities and CLI tools for system administration tasks including:
- Administrator account bootstrap
- Role assignment from the command line
"""
