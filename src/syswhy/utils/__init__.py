"""Shared helpers: kernel file readers, command execution, formatting, logging and configuration"""
