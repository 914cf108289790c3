"""
File sharing gatekeeper service.

The gatekeeper is a Flask application that stands in front of the file
sharing application. None of the file sharing features can be reached until
a session has been established here.

Context
-------
People create an account with an email address and password, or sign in with
their Google account; the first Google sign-in for an address creates a local
account with no password. Signing in registers a session in the distributed
session store and hands the browser a signed session cookie. Forgotten
passwords are reset through a single-use, time-limited link sent by email.

Sign-in and password reset responses are deliberately uninformative about
whether an address has an account.
"""
