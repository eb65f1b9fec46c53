from account_api.main import run

run()
