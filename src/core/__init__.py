"""
Session core: transcript, lifecycle, result cache, history and the controller.
"""
