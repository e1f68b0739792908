from notify_relay.main import run

run()
