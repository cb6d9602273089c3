"""CHUNKHOUND command-line interface"""
