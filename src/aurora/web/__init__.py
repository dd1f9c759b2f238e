"""Browser terminal for Aurora.

An **optional** extra — install with::

    pip install aurora-os[web]

``create_app`` in ``app.py`` boots a kernel on a buffered device and
serves the shell over three endpoints: the terminal page, a command
endpoint that feeds one line to the foreground process, and a status
endpoint for polling.
"""
