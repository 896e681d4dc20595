"""Shared configuration, logging, constants and exceptions."""
