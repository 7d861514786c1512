VERSION = "1.0.0"
HTTPCLIENT = "httpclient " + VERSION
