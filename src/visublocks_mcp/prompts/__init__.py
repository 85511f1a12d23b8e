"""Prompt templates for the generation backend."""
