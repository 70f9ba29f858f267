"""Streamlit glue for the dashboard pages."""
