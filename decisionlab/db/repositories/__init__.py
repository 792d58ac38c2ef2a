"""Data-access helpers shared by the engines and services."""
