"""CHUNKHOUND utilities: pattern catalogue, URL helpers, text windows"""
