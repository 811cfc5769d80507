"""Streamlit admin console."""
