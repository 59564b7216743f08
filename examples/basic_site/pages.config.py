CONFIG = {
    'data': {
        'site_name': 'Basic Site',
        'menus': [
            {'title': 'Home', 'href': 'index.html'},
            {'title': 'About', 'href': 'about.html'},
        ],
    },
    'server': {
        'port': 2081,
    },
}
