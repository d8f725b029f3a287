"""Conversation history, persistence and the chat turn pipeline."""
