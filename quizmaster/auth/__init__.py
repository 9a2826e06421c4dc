"""
Auth Module - Đăng ký, đăng nhập bằng bearer token
"""
