from cardgen.main import serve

serve()
