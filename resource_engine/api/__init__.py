"""HTTP API for the resource engine"""
