"""Stateful collaborators around the pure derivation core: logging, stores
and the wallet <-> human ID resolver."""
