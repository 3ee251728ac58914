"""
Services package

Session storage, deferred execution, timeouts and the outbound channels.
Import the submodules directly; ``chuksbot.services.chat`` depends on the
orchestration package, which in turn imports these services.
"""
